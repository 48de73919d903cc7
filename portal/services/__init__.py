"""Services behind the portal views and form sessions."""
