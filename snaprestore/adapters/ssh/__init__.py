"""SSH transport to the restore target."""
