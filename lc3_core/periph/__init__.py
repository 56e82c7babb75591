# LC-3 Core - Memory-mapped devices (keyboard, display)
