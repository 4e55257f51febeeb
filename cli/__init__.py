"""Command line interface for SheetTrans-LLM."""
