"""Serializers for the final property map."""
