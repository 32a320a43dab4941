"""
Shared, cross-cutting code for the wiki database service.

`core/` should contain small building blocks that the feature packages use
(DB wiring, settings, the event bus, error types). Keep page-specific SQL
handling and message routing in `pages/`.
"""
