"""HTTP routers: JSON API and server-rendered pages."""
