"""
sqlodata.api - REST API Gateway
===============================

FastAPI gateway exposing every collection group as an OData v4 service
root.

Usage
-----
>>> from sqlodata.api import create_app
>>> app = create_app()
>>> # Run with: uvicorn sqlodata.api:app

Or run directly:
>>> python -m sqlodata.api

"""

from pathlib import Path

from dotenv import load_dotenv

# Load .env before the gateway reads ODATA_* variables
env_path = Path.cwd() / ".env"
if not env_path.exists():
    env_path = Path(__file__).resolve().parent.parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

from sqlodata.api.gateway import create_app, get_gateway, ODataGateway

# Create default app instance for uvicorn
app = create_app()

__all__ = [
    "create_app",
    "get_gateway",
    "ODataGateway",
    "app",
]
