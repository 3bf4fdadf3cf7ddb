"""Tests for the linecut package."""
