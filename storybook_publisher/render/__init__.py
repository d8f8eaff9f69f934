"""Rendering — HTML pages for the published site and Rich run reports."""
