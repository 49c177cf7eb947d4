"""Generate grpc.aio clients, servicers and forwarding gateways for protobuf services."""
