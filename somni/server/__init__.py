"""HTTP API package: FastAPI app, Pydantic schemas, in-memory record stores."""
