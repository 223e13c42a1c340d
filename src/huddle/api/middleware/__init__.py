"""Request dependencies shared across routers."""
