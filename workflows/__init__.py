"""Workflow definitions module."""

from workflows.scrub_workflow import OrderScrubWorkflow, OrderScrubInput, OrderScrubOutput

__all__ = ["OrderScrubWorkflow", "OrderScrubInput", "OrderScrubOutput"]
