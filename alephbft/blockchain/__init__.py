"""A toy blockchain with mock cryptography, ordered by Aleph BFT."""