"""Built-in collaborators for the FHIR package explorer."""
