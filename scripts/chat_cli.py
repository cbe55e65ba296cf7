#!/usr/bin/env python3
"""Interactive chat CLI for testing the CFO assistant."""

import json
import sys

import httpx
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt


class ChatCLI:
    """Interactive chat interface that renders the live event stream."""

    def __init__(self, base_url: str = "http://localhost:8000"):
        """Initialize chat CLI."""
        self.base_url = base_url
        self.history: list[dict[str, str]] = []
        self.console = Console()
        self.client = httpx.Client(timeout=httpx.Timeout(10.0, read=120.0))

    def start(self) -> None:
        """Start the interactive chat session."""
        self.console.print(
            Panel.fit(
                "[bold blue]Numera CFO Assistant - Interactive Chat[/bold blue]\n"
                "Type your messages to chat with the assistant.\n"
                "Commands: /help, /clear, /quit",
                border_style="blue",
            )
        )

        if not self._test_connection():
            self.console.print(f"[red]Cannot connect to the service at {self.base_url}.[/red]")
            return

        self.console.print("[green]Connected to the CFO assistant[/green]\n")

        try:
            while True:
                user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]")

                if user_input.lower() in ["/quit", "/exit", "quit", "exit"]:
                    break
                elif user_input.lower() == "/help":
                    self._show_help()
                    continue
                elif user_input.lower() == "/clear":
                    self.history = []
                    self.console.print("[yellow]History cleared[/yellow]")
                    continue
                elif user_input.strip() == "":
                    continue

                answer = self._send_message(user_input)
                if answer is not None:
                    self.history.append({"role": "user", "content": user_input})
                    self.history.append({"role": "assistant", "content": answer})
                    self._display_response(answer)

        except KeyboardInterrupt:
            pass
        finally:
            self.console.print("\n[yellow]Goodbye![/yellow]")
            self.client.close()

    def _test_connection(self) -> bool:
        """Test connection to the service."""
        try:
            response = self.client.get(f"{self.base_url}/health")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    def _send_message(self, message: str) -> str | None:
        """Stream a message through the assistant and return the final answer."""
        payload = {"messages": [*self.history, {"role": "user", "content": message}]}
        step_text: dict[int, str] = {}

        try:
            with self.client.stream("POST", f"{self.base_url}/chat", json=payload) as response:
                if response.status_code != 200:
                    response.read()
                    self.console.print(f"[red]API Error: {response.status_code} - {response.text}[/red]")
                    return None

                for line in response.iter_lines():
                    if not line:
                        continue
                    event = json.loads(line)
                    self._render_event(event, step_text)
                    if event["type"] == "error":
                        return None

        except httpx.HTTPError as e:
            self.console.print(f"[red]Connection error: {e}[/red]")
            return None

        return step_text[max(step_text)] if step_text else ""

    def _render_event(self, event: dict, step_text: dict[int, str]) -> None:
        """Print progress for a single stream event."""
        match event["type"]:
            case "text_delta":
                step_text[event["step"]] = step_text.get(event["step"], "") + event["chunk"]
                self.console.print(event["chunk"], end="", style="dim", markup=False, highlight=False)
            case "tool_call_started":
                self.console.print(f"\n[magenta]> {event['name']}[/magenta] [dim]({event['id']})[/dim]")
            case "tool_call_finished":
                outcome = event["outcome"]
                if outcome["status"] == "success":
                    self.console.print(f"[green]  {event['name']} done[/green]")
                else:
                    self.console.print(f"[red]  {event['name']} failed: {outcome['kind']} - {outcome['message']}[/red]")
            case "data_changed":
                self.console.print(f"[yellow]  records updated by {event['tool']}[/yellow]")
            case "step_finished":
                step_text.setdefault(event["index"], "")
            case "terminated":
                self.console.print(f"\n[dim]finished: {event['reason']} after {event['steps']} step(s)[/dim]")
            case "error":
                self.console.print(f"\n[red]Error: {event['detail']}[/red]")

    def _display_response(self, answer: str) -> None:
        """Display the final answer with nice formatting."""
        self.console.print(
            Panel(
                Markdown(answer or "_No answer_"),
                title="[bold green]CFO Assistant[/bold green]",
                border_style="green",
                padding=(1, 2),
            )
        )

    def _show_help(self) -> None:
        """Show help information."""
        help_text = """
[bold]Available Commands:[/bold]
• /help - Show this help message
• /clear - Clear the conversation history
• /quit or /exit - Exit the chat

[bold]Example Questions:[/bold]
1. "What is my revenue this month?"
2. "Which invoices are overdue?"
3. "Boulangerie Martin paid INV-2024-002, please record it"
4. "Find everything about Studio Lumiere"
5. "I paid 49,90 € for printer ink today, add it as an expense"
        """

        self.console.print(Panel(help_text.strip(), title="[cyan]Help[/cyan]", border_style="cyan"))


def main():
    """Main entry point for the chat CLI."""
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"

    chat = ChatCLI(base_url)
    chat.start()


if __name__ == "__main__":
    main()
