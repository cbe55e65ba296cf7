"""Agent orchestration: conversation state, step controller and event stream."""
