"""HTTP clients for the embeddings and chat-completion providers."""
