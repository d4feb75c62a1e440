"""Pure reservation rules: policies, intervals, pricing and lifecycle."""
