# HTTP surface for the authorization bridge.
# Created: 2026-10-18
#
# FastAPI routers for registration, authorize, callback, token and the
# bearer-protected resource endpoint. Build the app with serve.create_api_app().
