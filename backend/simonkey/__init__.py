"""Simonkey progress and scoring backend."""
