"""Test suite for the noticeboard package."""
