"""NFT marketplace REST backend."""
