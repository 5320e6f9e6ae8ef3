"""Local resources: the loopback file server and the scratch reclaimer."""
