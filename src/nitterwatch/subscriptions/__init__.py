"""Channel subscriptions: persisted store, in-memory index, command facade."""
