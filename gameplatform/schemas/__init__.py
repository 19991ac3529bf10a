# Pydantic request/response schemas, one module per service
