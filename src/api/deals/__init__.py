"""RoofCRM deals API service."""
