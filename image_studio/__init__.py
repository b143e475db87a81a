"""Image studio: prompt-driven image generation, diffusion and storage relay."""
