"""Gateway domain: the instance gateway contract and its failure taxonomy."""
