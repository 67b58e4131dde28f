"""WSGI entrypoint for Passenger-style hosting of the BDTax backend."""

from bdtax.backend.app import create_app

# Passenger looks up a module-level ``application`` callable.
application = create_app()
