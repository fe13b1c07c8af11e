"""
RoofCRM core: the deal workflow engine and its storage, auth and
observability collaborators.
"""
