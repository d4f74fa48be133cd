"""Forum Stage: session, identity and reaction services for a discussion forum."""
