"""Application services: auth, generic handlers, reports and ratings."""
