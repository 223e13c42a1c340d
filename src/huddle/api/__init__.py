"""HTTP surface -- FastAPI gateway, routes and request/response models."""
