"""
Pydantic form schemas.

Every page form is validated by one of these models before anything is sent
to the backend: authentication, users, companies, interventions, billing,
messaging and the public site.
"""
