"""Redis-backed and tiered local/remote caches."""