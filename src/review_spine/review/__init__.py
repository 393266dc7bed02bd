"""Review workflow components: filename codec, status vocabulary, row model,
intake monitor, status router and archive processor."""
