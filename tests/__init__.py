"""Test suite for ClusterKit."""
