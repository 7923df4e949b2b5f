"""MiniUSM command-line tooling."""
