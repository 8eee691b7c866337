"""Economy runtime: curves, ledger, zone ticks, milestones and time handling."""
