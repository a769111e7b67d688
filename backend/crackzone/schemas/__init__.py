"""Request, response and stored-document schemas."""
