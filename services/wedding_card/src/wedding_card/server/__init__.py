"""HTTP layer serving the optimize and upload endpoints."""
