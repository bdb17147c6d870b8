"""Feature packages: HTTP transport and Bitbucket API bindings."""
