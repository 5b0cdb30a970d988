# /shopgenie/utils/metrics.py

from prometheus_client import Counter, Histogram

# All Prometheus metrics used for application monitoring live here.

# Conversation metrics
message_counter = Counter('messages_processed_total', 'Total messages processed', ['message_type', 'status'])
pattern_match_counter = Counter('pattern_matches_total', 'Messages claimed by the pattern table', ['action'])
classifier_requests_counter = Counter('classifier_requests_total', 'Intent classifier calls', ['source', 'intent'])
flow_transition_counter = Counter('flow_transitions_total', 'Session flow transitions', ['flow', 'step'])
message_processing_histogram = Histogram('message_processing_seconds', 'Time spent resolving and handling one message')

# Storage metrics
database_operations_counter = Counter('database_operations_total', 'Database operations', ['operation', 'status'])
cache_operations = Counter('cache_operations_total', 'Cache operations', ['operation', 'status'])

# Resilience metrics
circuit_breaker_transitions = Counter('circuit_breaker_transitions_total', 'Circuit breaker state changes', ['service', 'state'])

# Security metrics
webhook_signature_counter = Counter('webhook_signature_verifications_total', 'Webhook signature verifications', ['status'])

# HTTP metrics
response_time_histogram = Histogram('http_response_time_seconds', 'HTTP response time', ['endpoint'])
