"""Click commands for the repotree CLI."""
