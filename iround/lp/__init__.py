"""LP model, tolerant comparison and separation oracles."""
