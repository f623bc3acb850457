# Presence of each unit's workload across cycles. Feeds the retention policy.
