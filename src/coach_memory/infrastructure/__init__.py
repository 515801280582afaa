"""Infrastructure adapters: Neo4j store, Voyage embeddings, OpenAI summaries."""
