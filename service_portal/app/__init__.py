"""
Portal service package.

The portal serves the login and registration pages and a set of venue
pages. Every /api route passes the access gateway first:
- Rate limiting: fixed window per client address
- Authentication: signed session cookie checked against the credential store

Structure:
- app.main: FastAPI app, lifecycle and gateway wiring.
- app.adapters: Credential store implementations.
- app.auth: Session tokens, session verification, accounts.
- app.ratelimit: Fixed-window limiter and counter stores.
- app.domain: The access gateway and its rejection responses.
- app.routes: Route table and account routes.
- app.content: Data shown on the pages.
"""
