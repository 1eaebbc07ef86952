"""Client, messages and state machine of a replicated key/value service."""