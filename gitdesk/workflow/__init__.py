"""Branch creation and switching workflows."""
