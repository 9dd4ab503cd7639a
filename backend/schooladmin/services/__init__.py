"""Domain services: business rules live here, routes only translate HTTP."""
