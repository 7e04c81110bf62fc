"""syndex — incremental hierarchical semantic index for integration-artifact XML."""
