"""Text processing: normalization, action verbs and signatures."""
